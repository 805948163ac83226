import os
from dotenv import load_dotenv

load_dotenv()

class Config:
    """Rank store configuration settings"""
    
    # Backing store settings
    BACKING_STORE_URL = os.getenv('BACKING_STORE_URL', 'memory://')
    MAX_VALUE_SIZE = int(os.getenv('MAX_VALUE_SIZE', 4 * 1024 * 1024))  # Hosted key/value value limit
    
    # Logging settings
    DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'
    LOG_DIR = os.getenv('LOG_DIR', 'logs')
    
    # Store defaults (constructor arguments always take precedence)
    DEFAULT_LAZY_SAVE_TIME = float(os.getenv('DEFAULT_LAZY_SAVE_TIME', 60))
    DEFAULT_DATA_STRUCTURE = os.getenv('DEFAULT_DATA_STRUCTURE', 'table')
    DEFAULT_COMPRESSION = os.getenv('DEFAULT_COMPRESSION', 'base91')
    
    # Retry settings for transient backing store failures
    RETRY_MAX_ATTEMPTS = int(os.getenv('RETRY_MAX_ATTEMPTS', 3))
    RETRY_BASE_DELAY = float(os.getenv('RETRY_BASE_DELAY', 0.1))  # Doubled per attempt
    
    @classmethod
    def validate(cls):
        """Validate that configured defaults are usable"""
        from rankstore.constants import StoreConstants
        
        if cls.DEFAULT_DATA_STRUCTURE not in StoreConstants.DATA_STRUCTURES:
            raise ValueError(
                f"DEFAULT_DATA_STRUCTURE must be one of {', '.join(StoreConstants.DATA_STRUCTURES)}"
            )
        if cls.DEFAULT_COMPRESSION not in StoreConstants.COMPRESSIONS:
            raise ValueError(
                f"DEFAULT_COMPRESSION must be one of {', '.join(StoreConstants.COMPRESSIONS)}"
            )
        if cls.DEFAULT_LAZY_SAVE_TIME != StoreConstants.LAZY_SAVE_DISABLED and cls.DEFAULT_LAZY_SAVE_TIME < 0:
            raise ValueError("DEFAULT_LAZY_SAVE_TIME must be -1 or a non-negative number of seconds")
        if cls.RETRY_MAX_ATTEMPTS < 1:
            raise ValueError("RETRY_MAX_ATTEMPTS must be at least 1")
        if cls.MAX_VALUE_SIZE <= 0:
            raise ValueError("MAX_VALUE_SIZE must be positive")
