"""
Core application engine for building the collection and orchestrating downloads.

`LibraryLoader` populates the `CollectionIndex`; the `DownloadManager` expands
download scopes into single-title downloads and hands each result to the
`RepackCoordinator`.
"""
