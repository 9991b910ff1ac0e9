"""翻页模式的测量、分页与会话。"""
