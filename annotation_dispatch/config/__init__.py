from .config import Config, config
from .dispatch_config import DispatchConfig, FaultInjection

__all__ = ['Config', 'config', 'DispatchConfig', 'FaultInjection']
