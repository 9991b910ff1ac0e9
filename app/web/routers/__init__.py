"""API 路由。"""
