from nfex.config.nfex_config import NFeXConfig

__all__ = ['NFeXConfig']
