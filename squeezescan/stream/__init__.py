from squeezescan.stream.alpaca_stream import AlpacaQuoteStream
from squeezescan.stream.base import LiveQuote, QuoteStream
from squeezescan.stream.subscription import SubscriptionManager

__all__ = ["AlpacaQuoteStream", "LiveQuote", "QuoteStream", "SubscriptionManager"]
