"""gq 命令行。"""
