"""
API 層：FastAPI routers，只負責把 HTTP 請求轉給 core 並把異常轉成 HTTP 錯誤
"""
