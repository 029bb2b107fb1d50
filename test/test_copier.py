from reportwarden import copier


def make_reports(directory, *names):
    for name in names:
        (directory / name).write_text(f'<report name="{name}"/>')


def test_copy_reports_moves_each_file(tmp_path):
    source = tmp_path / 'upload'
    dest = tmp_path / 'dashboard'
    source.mkdir()
    dest.mkdir()
    make_reports(source, 'sales_20240115.xml', 'warehouse_20240115.xml')
    (source / 'notes.txt').write_text('ignored')

    results = copier.copy_reports(source, dest, '.xml', remove_source=True)

    assert [r.name for r in results] == [
        'sales_20240115.xml', 'warehouse_20240115.xml']
    assert all(r.error is None for r in results)
    assert sorted(p.name for p in source.iterdir()) == ['notes.txt']
    assert sorted(p.name for p in dest.iterdir()) == [
        'sales_20240115.xml', 'warehouse_20240115.xml']
    assert (dest / 'sales_20240115.xml').read_text() == \
        '<report name="sales_20240115.xml"/>'


def test_copy_reports_keeps_source_without_move(tmp_path):
    source = tmp_path / 'dashboard'
    dest = tmp_path / 'backup'
    source.mkdir()
    dest.mkdir()
    make_reports(source, 'sales_20240115.xml')
    copier.copy_reports(source, dest, '.xml')
    assert (source / 'sales_20240115.xml').exists()
    assert (dest / 'sales_20240115.xml').exists()


def test_one_failure_does_not_stop_the_others(tmp_path):
    source = tmp_path / 'upload'
    dest = tmp_path / 'dashboard'
    source.mkdir()
    dest.mkdir()
    make_reports(source, 'a.xml', 'b.xml', 'c.xml')
    # A directory in the way makes the copy of b.xml fail.
    (dest / 'b.xml').mkdir()

    results = copier.copy_reports(source, dest, '.xml', remove_source=True)

    by_name = {r.name: r for r in results}
    assert by_name['a.xml'].error is None
    assert by_name['c.xml'].error is None
    assert by_name['b.xml'].error is not None
    assert by_name['b.xml'].destination is None
    # The failed file is still in intake, unchanged; nothing partial is left.
    assert (source / 'b.xml').read_text() == '<report name="b.xml"/>'
    assert not (source / 'a.xml').exists()
    assert sorted(p.name for p in dest.iterdir()) == [
        'a.xml', 'b.xml', 'c.xml']
    assert (dest / 'b.xml').is_dir()


def test_subdirectories_and_partials_are_skipped(tmp_path):
    source = tmp_path / 'upload'
    dest = tmp_path / 'dashboard'
    source.mkdir()
    dest.mkdir()
    (source / 'archive.xml').mkdir()
    make_reports(source, copier.PARTIAL_PREFIX + 'a.xml')
    assert copier.copy_reports(source, dest, '.xml') == []


def test_main_output_and_status(tmp_path, capsys):
    source = tmp_path / 'upload'
    dest = tmp_path / 'dashboard'
    source.mkdir()
    dest.mkdir()
    make_reports(source, 'a.xml', 'b.xml')
    (dest / 'b.xml').mkdir()

    status = copier.main([str(source), str(dest), '--move'])

    out, err = capsys.readouterr()
    assert status == 1
    assert out.splitlines() == ['Transferred: a.xml']
    assert err.startswith('Failed: b.xml: ')


def test_main_missing_source(tmp_path, capsys):
    status = copier.main([str(tmp_path / 'nowhere'), str(tmp_path)])
    assert status == 1
    assert 'Failed to read' in capsys.readouterr().err


def test_main_success(tmp_path, capsys):
    make_reports(tmp_path, 'a.xml')
    dest = tmp_path / 'snapshot'
    dest.mkdir()
    assert copier.main([str(tmp_path), str(dest)]) == 0
    assert capsys.readouterr().out == 'Copied: a.xml\n'
