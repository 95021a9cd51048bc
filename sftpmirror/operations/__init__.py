"""Operations (listing, batch commands, scanning, transfer, delete)"""
from .listing import parse_ls_line, parse_listing
from .batch import mkdir_chain, upload_command, download_command, remove_command
from .scanner import walk_remote_tree, local_list_all
from .transfer import execute_transfers
from .delete import delete_remote

__all__ = [
    "parse_ls_line", "parse_listing",
    "mkdir_chain", "upload_command", "download_command", "remove_command",
    "walk_remote_tree", "local_list_all",
    "execute_transfers",
    "delete_remote",
]
