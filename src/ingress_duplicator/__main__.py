from ingress_duplicator.cli import main

main()
