"""PR destination writer and its collaborators.

Components:
- identity label codec (commit message trailers)
- branch resolver
- local git repository adapter
- GitHub pull request manager
- the destination/writer orchestrating them
"""
