"""FastAPI Web 服务。"""
