import pytest

from f5_bigip_provider.exceptions import ConfigError


def _recording_connect(calls):
    def connect(host, username, password, **kwargs):
        calls.append((host, username, password, kwargs))
        return 'client'
    return connect


def test_schemas_are_consistent(provider):
    assert provider.internal_validate() == []


def test_registered_types(provider):
    assert sorted(provider.resources_map) == [
        'bigip_apm_webtop', 'bigip_ilx_workspace', 'bigip_net_dns_resolver']
    assert list(provider.data_sources_map) == ['bigip_apm_webtop']
    assert provider.data_source('bigip_apm_webtop').is_data_source()
    assert not provider.resource('bigip_apm_webtop').is_data_source()
    with pytest.raises(ConfigError):
        provider.data_source('bigip_net_dns_resolver')


def test_configure(provider):
    calls = []
    client = provider.configure({'address': '10.1.1.4',
                                 'username': 'admin',
                                 'password': 'secret',
                                 'token_auth': True},
                                connect=_recording_connect(calls))

    assert client == 'client'
    host, username, password, kwargs = calls[0]
    assert (host, username, password) == ('10.1.1.4', 'admin', 'secret')
    assert kwargs['port'] == 443
    assert kwargs['token'] is True
    assert kwargs['verify'] is False
    assert kwargs['user_agent'].startswith('f5-bigip-provider-')


def test_configure_falls_back_to_environment(monkeypatch, provider):
    monkeypatch.setenv('BIGIP_HOST', 'bigip.example.com')
    monkeypatch.setenv('BIGIP_USER', 'env-user')
    monkeypatch.setenv('BIGIP_PASSWORD', 'env-pass')
    monkeypatch.setenv('BIGIP_PORT', '8443')
    calls = []

    provider.configure({'username': 'admin'},
                       connect=_recording_connect(calls))

    host, username, password, kwargs = calls[0]
    assert host == 'bigip.example.com'
    assert username == 'admin'
    assert password == 'env-pass'
    assert kwargs['port'] == 8443


def test_configure_requires_credentials(monkeypatch, provider):
    for env in ('BIGIP_HOST', 'BIGIP_USER', 'BIGIP_PASSWORD', 'BIGIP_PORT'):
        monkeypatch.delenv(env, raising=False)

    with pytest.raises(ConfigError):
        provider.configure({'address': '10.1.1.4', 'username': 'admin'},
                           connect=_recording_connect([]))
    with pytest.raises(ConfigError):
        provider.configure({'address': '10.1.1.4', 'username': 'admin',
                            'password': 'x', 'port': 'https'},
                           connect=_recording_connect([]))
