"""
服務層

這個 package 包含純計算邏輯，不負責狀態轉換：
- PayoffService：投資驗證與計分邏輯
- NamingService：房間代碼與名稱整理
"""
