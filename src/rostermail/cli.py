"""CLI entry point for rostermail - builds listserv mailing lists from student rosters."""

import argparse

from .listserv import LISTSERV_ENCODING


def build_parser():
    parser = argparse.ArgumentParser(
        prog='rostermail',
        description='Extract mail addresses for roster students from the university '
                    'LDAP directory and write a listserv compatible TXT file.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""\
Example:
    rostermail rosters/ "Vorname" "Nachname" "E-Mail" "UBT-Mail" students.txt
    rostermail rosters/ First Last Temp Ubt list.txt -c directory.yaml -q
""",
    )
    parser.add_argument(
        'input_directory',
        help='The directory where the input files (.xls, .xlsx, .csv) are placed',
    )
    parser.add_argument(
        'first_name_column',
        help='The "name" (first row) of the column for the first name',
    )
    parser.add_argument(
        'last_name_column',
        help='The "name" (first row) of the column for the last name',
    )
    parser.add_argument(
        'tmp_mail_column',
        help='The "name" (first row) of the column for the temporary email',
    )
    parser.add_argument(
        'ubt_mail_column',
        help='The "name" (first row) of the column for the ubt email (currently not read)',
    )
    parser.add_argument(
        'output_file',
        help='The name of the output txt file',
    )
    parser.add_argument(
        '--config', '-c', default=None,
        help='YAML file with directory settings (optional)',
    )
    parser.add_argument(
        '--host', default=None,
        help='Directory server host (overrides config)',
    )
    parser.add_argument(
        '--port', type=int, default=None,
        help='Directory server port (overrides config)',
    )
    parser.add_argument(
        '--base-dn', default=None,
        help='Search base DN (overrides config)',
    )
    parser.add_argument(
        '--timeout', type=float, default=None,
        help='Connect and query timeout in seconds (overrides config)',
    )
    parser.add_argument(
        '--delimiter', default=',',
        help='Field delimiter of CSV input files (default: ",")',
    )
    parser.add_argument(
        '--encoding', default=LISTSERV_ENCODING,
        help=f'Character encoding of the output file (default: {LISTSERV_ENCODING})',
    )
    parser.add_argument(
        '--quiet', '-q', action='store_true',
        help='Suppress verbose output',
    )

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    from .build import run_build
    run_build(
        input_dir=args.input_directory,
        first_name_column=args.first_name_column,
        last_name_column=args.last_name_column,
        tmp_mail_column=args.tmp_mail_column,
        ubt_mail_column=args.ubt_mail_column,
        output_file=args.output_file,
        config_file=args.config,
        host=args.host,
        port=args.port,
        base_dn=args.base_dn,
        timeout=args.timeout,
        delimiter=args.delimiter,
        encoding=args.encoding,
        quiet=args.quiet,
    )


if __name__ == '__main__':
    main()
