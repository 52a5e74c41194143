"""
核心業務邏輯層

這個 package 包含所有核心業務邏輯，包括：
- 狀態機：集中管理比賽狀態轉換
- Manager：管理 Room 的讀寫（Room Store）
- Race Lifecycle：倒數、取樣、決定贏家
- Locks：並發控制工具
"""
