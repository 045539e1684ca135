"""Transfers between warehouses: send, receive, cancel."""

from inventory_modules.transfers.service import TransferService

__all__ = ["TransferService"]
