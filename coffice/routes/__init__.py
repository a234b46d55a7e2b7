# Infrastructure routes live in main; application routes are in v1/
