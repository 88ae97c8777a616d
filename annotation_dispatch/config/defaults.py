# annotation_dispatch/config/defaults.py
"""Default configuration values for dispatch, logging and paths"""

from pathlib import Path

# Project path
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / 'logs'

PATHS = {
    'project_root': str(PROJECT_ROOT),
    'logs_dir': str(LOGS_DIR),
}

# Forked dispatch - fork=0 runs every chunk in-process
DISPATCH = {
    'fork': 0,  # number of worker processes; 0/None disables forking
    'buffer_size': 5000,  # records pulled from the source per chunk
    'min_sub_chunk_size': 50,
    'delta': 0.5,  # oversubscription factor of the splitter
    'start_method': 'fork',  # multiprocessing start method for workers
    'worker_timeout': None,  # seconds; None blocks until a worker reports
    'terminate_grace_seconds': 5.0,  # SIGTERM -> SIGKILL delay when aborting
}

LOGGING = {
    'level': 'INFO',
    'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    'file': None,  # set to enable the rotating JSON log file
    'max_file_size': 100 * 1024 * 1024,
    'backup_count': 5,
    'console_context': True,
}
