"""
Anonymous two-party chat roulette with a Markov-chain stand-in partner.

Modules:
- connection: Connection protocol, in-memory pipe and asyncio stream adapters
- markov: Chain (prefix -> suffixes table) + per-stream Trainer cursors
- bot: Bot, a Connection that answers every message with generated text
- relay: bidirectional copy between two paired connections
- matcher: Rendezvous single-slot hand-off + Matcher with bot fallback
- server: TCP listener wiring
- config: env/.env settings
- states: MatchRole, RelayOutcome, MatchResult, MatcherMetrics
"""
