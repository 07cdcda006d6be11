"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理 Room 的階段轉換
- Manager：管理 Room、Round、Roster 的生命週期
- Record Store：guarded update（樂觀鎖），取代 row lock
- Exceptions：錯誤分類
"""
