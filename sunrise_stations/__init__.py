"""Offline data preparation for the sunrise-station map (初日の出が見える駅)."""
