from deal_archiver.cli import main

main()
