"""阅读核心：EPUB 解析、分页排版、滚动窗口加载、锚点定位。"""
