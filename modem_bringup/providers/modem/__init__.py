"""
Modem query transports
- ATTransport: free-text AT replies over the probed serial endpoint
- QMITransport: structured fields through qmicli

Import the transports from their modules; this package stays import-light
so the services layer can pull in the constants without a cycle.
"""
