"""
Exporter App - WeCom External Contact Export

Responsibilities:
- Scheduled execution (daily cron via APScheduler) or a single RUN_ONCE pass
- Fetch department members and tag members with bounded concurrency
- Fetch external contacts in batches of 100 user IDs, following next_cursor
- Render the contacts as a CSV report with a tag-membership column
- Deliver the report to local disk (ENV=local) or to SFTP

Output:
- Medical_External_Contact_[YYYYMMDD].csv
"""
