"""EPUB 容器、OPF、目录与章节内容解析。"""
