"""Finance Vault Meta information.
   Finance Vault protects the locally persisted records of a personal
   finance tracker: encryption at rest, validation and security monitoring.
"""
__title__ = 'finance_vault'
__description__ = (
   'Finance Vault protects locally persisted personal finance records '
   'with session-bound encryption, validation and monitoring.'
)
__version__ = '0.3.0'
__copyright__ = 'Copyright (c) 2025 Finance Vault Authors'
__author__ = 'Finance Vault Authors'
__author_email__ = 'maintainers@finance-vault.dev'
__license__ = 'Apache-2.0'
__url__ = 'https://github.com/finance-vault/finance-vault'
