"""滚动模式的窗口化章节加载。"""
