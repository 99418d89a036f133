"""CleanGuard QC 设施巡检平台 - 通知分发与提醒引擎"""

__version__ = "1.0.0"
