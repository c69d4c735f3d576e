"""
Ledger binding package.

Address derivation, account/instruction layouts and the RPC client live here.
Everything that must match the on-chain program byte for byte is in
`addresses.py` and `layout.py`.
"""
