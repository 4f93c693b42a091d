from logvault.cli.main import main

main()
