"""sftpmirror - mirror a local project to a remote server over sftp"""
__version__ = "0.1.0"
