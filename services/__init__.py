"""
服務層

這個 package 包含純計算邏輯與外部協作者，不負責狀態轉換：
- NamingService：房間代碼、Host token、玩家名稱
- PredictionService：預測驗證、贏家計算
- QuoteService：報價 API client
- HistoryService：房間狀態快照
- RaceRunner / RoomPoller：Host 端 tick 驅動、訪客端輪詢
"""
