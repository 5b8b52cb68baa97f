from datetime import UTC, datetime


class Datetime:
    """
    统一的时间工具
    系统内部（数据库、令牌、日志）一律使用带时区的 UTC 时间
    """

    @staticmethod
    def now() -> datetime:
        """当前 UTC 时间（带时区信息）"""
        return datetime.now(UTC)
