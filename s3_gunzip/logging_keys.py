EVENT_KEY = "event"
ERROR_KEY = "error"
RESULTS_KEY = "results"

LOG_MESSAGE_TRANSFER_COMPLETE = "Transfer:Complete"
LOG_MESSAGE_TRANSFER_FAILED = "Transfer:Failed"
LOG_MESSAGE_DOWNLOAD_COMPLETE = "Download:Complete"
LOG_MESSAGE_BATCH_ABORTED = "Batch:Aborted"
