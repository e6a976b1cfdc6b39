SERVICE_NAME = "mongootils"
