"""命令行与 Web 入口。"""
