"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings


class BanklineConfig(BaseSettings):
    """Bankline service configuration"""
    
    # Database configuration
    database_url: str = "sqlite:///bankline.db"  # memory://, sqlite:///path or postgresql://...
    database_pool_size: int = 5
    
    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8080
    
    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    
    # Business rules configuration
    currency: str = "USD"
    seed_initial_balance: str = "1000.00"  # Major units
    
    class Config:
        env_prefix = "BANKLINE_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = BanklineConfig()


def get_config() -> BanklineConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> BanklineConfig:
    """Reload configuration from environment"""
    global config
    config = BanklineConfig()
    return config
