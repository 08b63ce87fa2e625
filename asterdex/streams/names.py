"""
AsterDEX Client - Stream Names.

Builders for subscription stream names. Symbols are lower-cased.
"""

from typing import Optional


class StreamNames:
    """Stream-name builders."""

    @staticmethod
    def agg_trade(symbol: str) -> str:
        return f"{symbol.lower()}@aggTrade"

    @staticmethod
    def trade(symbol: str) -> str:
        return f"{symbol.lower()}@trade"

    @staticmethod
    def kline(symbol: str, interval: str) -> str:
        return f"{symbol.lower()}@kline_{interval}"

    @staticmethod
    def mini_ticker(symbol: str) -> str:
        return f"{symbol.lower()}@miniTicker"

    @staticmethod
    def ticker(symbol: str) -> str:
        return f"{symbol.lower()}@ticker"

    @staticmethod
    def book_ticker(symbol: str) -> str:
        return f"{symbol.lower()}@bookTicker"

    @staticmethod
    def depth(symbol: str, levels: Optional[int] = None, update_speed_ms: Optional[int] = None) -> str:
        """
        Partial book depth (levels 5, 10 or 20) or diff depth when levels is omitted.

        Args:
            symbol: Trading symbol
            levels: Book levels
            update_speed_ms: e.g. 100 for "@100ms"
        """
        stream = f"{symbol.lower()}@depth"
        if levels:
            stream += str(levels)
        if update_speed_ms:
            stream += f"@{update_speed_ms}ms"
        return stream

    @staticmethod
    def diff_depth(symbol: str, update_speed_ms: Optional[int] = None) -> str:
        return StreamNames.depth(symbol, update_speed_ms=update_speed_ms)

    @staticmethod
    def all_mini_tickers() -> str:
        return "!miniTicker@arr"

    @staticmethod
    def all_tickers() -> str:
        return "!ticker@arr"

    @staticmethod
    def all_book_tickers() -> str:
        return "!bookTicker"

    @staticmethod
    def mark_price(symbol: str, every_second: bool = False) -> str:
        """Mark price stream; every 3s by default, every 1s when requested."""
        stream = f"{symbol.lower()}@markPrice"
        return f"{stream}@1s" if every_second else stream

    @staticmethod
    def all_mark_prices(every_second: bool = False) -> str:
        return "!markPrice@arr@1s" if every_second else "!markPrice@arr"

    @staticmethod
    def force_order(symbol: str) -> str:
        return f"{symbol.lower()}@forceOrder"

    @staticmethod
    def all_force_orders() -> str:
        return "!forceOrder@arr"
