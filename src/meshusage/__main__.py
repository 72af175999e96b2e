from meshusage.cli import main

main()
