"""Swap orchestration.

Modules:
- flow: SwapFlow facade used by the UI layer
- store: user-editable swap state and derived quote state
- session: quote fetching with supersession and staleness discard
- fingerprint: duplicate quote request suppression
- allowance: ERC-20 allowance checks and approvals
- executor: chain switch, submission, receipt and bridge status polling
- signer: wallet capability and the local private-key wallet
"""
