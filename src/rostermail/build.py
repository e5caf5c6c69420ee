"""
Mailing List Builder - collects students from roster files, looks up their
directory mail addresses and writes a listserv import file.
"""

import codecs
import sys
from pathlib import Path

from .common import SUPPORTED_EXTENSIONS, find_input_files
from .directory import DirectoryResolver, connect_directory, load_directory_config
from .errors import RosterMailError
from .extract import ColumnMap, load_registry, row_error_warning
from .listserv import LISTSERV_ENCODING, write_listserv


def build_mailing_list(input_dir, columns, output_file, open_resolver,
                       encoding=LISTSERV_ENCODING, delimiter=',', verbose=True):
    """
    Run the whole pipeline: extract, deduplicate, resolve, write.

    Args:
        input_dir: Directory containing the roster files
        columns: ColumnMap with the header labels
        output_file: Path of the listserv file to write
        open_resolver: Callable returning a connected DirectoryResolver
        encoding: Output character encoding
        delimiter: Field delimiter for .csv rosters
        verbose: Print detailed progress information

    Returns:
        Dictionary with the registry, warnings and output statistics

    Raises:
        RosterMailError: on schema mismatch, connection or write failure
    """
    results = {
        'input_files': [],
        'students': None,
        'resolved': 0,
        'warnings': [],
        'output_path': None,
        'entries': 0,
    }

    if verbose:
        print("Extracting data from files ...")
    input_files = find_input_files(input_dir)
    results['input_files'] = input_files

    if not input_files:
        print(
            f"   WARNING: No roster files ({', '.join(SUPPORTED_EXTENSIONS)}) "
            f"found in {input_dir}"
        )

    registry, row_errors = load_registry(
        input_files, columns, delimiter=delimiter, verbose=verbose,
    )
    results['students'] = registry
    results['warnings'].extend(row_error_warning(error) for error in row_errors)

    if verbose:
        print(f"   Unique students: {len(registry)}")
        print("Establishing directory connection ...")
    resolver = open_resolver()

    if verbose:
        print("Querying mail addresses from directory ...")
    try:
        results['resolved'] = resolver.resolve_all(registry, verbose=verbose)
    finally:
        resolver.close()
    results['warnings'].extend(resolver.warnings)

    if verbose:
        print("Writing results to listserv compatible TXT file ...")
    output_path, entries = write_listserv(registry, output_file, encoding=encoding)
    results['output_path'] = output_path
    results['entries'] = entries

    return results


def print_warnings(warnings):
    if not warnings:
        return
    print(f"\nWarnings ({len(warnings)}):")
    for warning in warnings:
        print(f"   WARNING: {warning}")


def run_build(input_dir, first_name_column, last_name_column, tmp_mail_column,
              ubt_mail_column, output_file, config_file=None, host=None, port=None,
              base_dn=None, timeout=None, delimiter=',', encoding=LISTSERV_ENCODING,
              quiet=False):
    """
    Run the listserv build workflow.

    Exits with status 1 on fatal errors. Per-student problems are reported as
    warnings and do not change the exit status.

    Args:
        input_dir: Directory containing the roster files
        first_name_column: Header label of the first name column
        last_name_column: Header label of the last name column
        tmp_mail_column: Header label of the provisional mail column
        ubt_mail_column: Header label of the university mail column (not read)
        output_file: Path of the listserv file to write
        config_file: YAML file with directory settings (optional)
        host, port, base_dn, timeout: Directory settings overriding the config
        delimiter: Field delimiter for .csv rosters
        encoding: Output character encoding
        quiet: Suppress verbose output
    """
    input_path = Path(input_dir)
    if not input_path.exists() or not input_path.is_dir():
        print(f"ERROR: Input directory not found: {input_dir}")
        sys.exit(1)

    if config_file and not Path(config_file).exists():
        print(f"ERROR: Config file not found: {config_file}")
        sys.exit(1)

    try:
        config = load_directory_config(
            config_file, host=host, port=port, base_dn=base_dn, timeout=timeout,
        )
    except ValueError as e:
        print(f"ERROR: {e}")
        sys.exit(1)

    try:
        codecs.lookup(encoding)
    except LookupError:
        print(f"ERROR: Unknown output encoding: {encoding}")
        sys.exit(1)

    columns = ColumnMap(first_name_column, last_name_column, tmp_mail_column, ubt_mail_column)

    print("\nListserv Mailing List Builder")
    print("=" * 60)

    def open_resolver():
        return DirectoryResolver(connect_directory(config), config)

    try:
        results = build_mailing_list(
            input_path, columns, output_file, open_resolver,
            encoding=encoding, delimiter=delimiter, verbose=not quiet,
        )
    except (RosterMailError, OSError) as e:
        print(f"\nERROR: {e}")
        sys.exit(1)

    print_warnings(results['warnings'])

    print("\n" + "=" * 60)
    print(
        f"{results['entries']} entries were written to the output file "
        f"\"{results['output_path']}\"."
    )

    return results
