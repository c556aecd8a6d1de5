"""
Pneuma - Transaction assembly and ledger interaction for Tessera.

Provides the deferred, composable transaction builder, the ledger
collaborator contract it completes against, and a JSON-RPC adapter
for ledger/emulator services.

Uses httpx for transport; redeemers and datums go through the codec
only when a transaction is finalized.
"""
