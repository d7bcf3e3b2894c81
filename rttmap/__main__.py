from rttmap.cli import main

main()
