"""
Core building blocks shared by the worker and the processors.

Modules:
- models: jobs, accounts, sessions and events
- errors: exception taxonomy
- encryption: session payload decryption
- photo_ingestion: photo references -> local files
- storage_client: authenticated object storage downloads
"""
