"""
Shared utilities: configuration, logging, bounded-concurrency fetching,
the WeCom directory client, report rendering and SFTP delivery.
"""
