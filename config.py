import os
import time

basedir = os.path.abspath(os.path.dirname(__file__))


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'your-secret-key-here-make-it-long'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or \
        'sqlite:///' + os.path.join(basedir, 'instance', 'splitvault.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Yield pool
    POOL_APY = int(os.environ.get('POOL_APY', 5))
    SECONDS_PER_YEAR = 365 * 24 * 60 * 60

    # 'escrowed' routes settlement through balances + pool, 'direct' moves the asset
    SETTLEMENT_MODE = os.environ.get('SETTLEMENT_MODE', 'escrowed')

    # Asset accounts
    LEDGER_CUSTODY_ADDRESS = os.environ.get('LEDGER_CUSTODY_ADDRESS', 'splitvault:ledger')
    POOL_ADDRESS = os.environ.get('POOL_ADDRESS', 'splitvault:pool')
    PROTOCOL_OWNER_ADDRESS = os.environ.get('PROTOCOL_OWNER_ADDRESS')

    ASSET_FAUCET_ENABLED = os.environ.get('ASSET_FAUCET_ENABLED', '0') == '1'

    # Unix seconds
    CLOCK = time.time


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test'
    PROTOCOL_OWNER_ADDRESS = 'owner'
    ASSET_FAUCET_ENABLED = True
