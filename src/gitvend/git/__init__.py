"""Git interface layer."""

from gitvend.git.adapter import GitError, clone, get_repo_root, list_tree, read_blob, rev_parse

__all__ = [
    "GitError",
    "clone",
    "get_repo_root",
    "list_tree",
    "read_blob",
    "rev_parse",
]
