"""
Pipeline Attestation - Call Context Module

Cancellation and deadline handling shared by the signing and storage
modules. Neither of them owns it, so each can be used on its own.
"""

from .context import CallContext, ContextDone, ensure_context

__all__ = ['CallContext', 'ContextDone', 'ensure_context']
