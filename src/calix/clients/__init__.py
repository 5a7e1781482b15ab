from .mint_client import MintClient

__all__ = ['MintClient']
