#!/usr/bin/env python3
"""
Custom folium elements for the training map

Each element renders a small piece of Leaflet JavaScript through a branca
MacroElement template. None of them touches Leaflet prototypes; the
animation guard wraps the methods of one marker instance only.
"""

import folium
from branca.element import MacroElement, Template


class AnimationGuard(MacroElement):
    """
    Make a marker's animation callbacks no-ops once it has left the map

    Leaflet can run a zoom animation frame after the marker was removed, at
    which point `_map` is null. The wrapped `_animateZoom`/`update` of the
    marker and `_updatePosition`/`_animateZoom` of its popup and tooltip
    return early in that case.
    """

    _template = Template(u"""
        {% macro script(this, kwargs) %}
        (function(layer) {
            function guarded(fn) {
                if (typeof fn !== 'function') { return fn; }
                return function() {
                    if (!this._map) { return this; }
                    return fn.apply(this, arguments);
                };
            }
            function guardOverlay(overlay) {
                if (!overlay || overlay._liveMapGuard) { return; }
                overlay._updatePosition = guarded(overlay._updatePosition);
                overlay._animateZoom = guarded(overlay._animateZoom);
                overlay._liveMapGuard = true;
            }
            layer._animateZoom = guarded(layer._animateZoom);
            layer.update = guarded(layer.update);
            guardOverlay(layer.getPopup && layer.getPopup());
            guardOverlay(layer.getTooltip && layer.getTooltip());
            layer.on('popupopen', function(e) { guardOverlay(e.popup); });
            layer.on('tooltipopen', function(e) { guardOverlay(e.tooltip); });
        })({{ this._parent.get_name() }});
        {% endmacro %}
        """)

    def __init__(self):
        super().__init__()
        self._name = 'AnimationGuard'


class GuardedMarker(folium.Marker):
    """folium.Marker carrying an AnimationGuard"""

    def __init__(self, location, popup=None, tooltip=None, icon=None, location_key=None, **kwargs):
        super().__init__(location=location, popup=popup, tooltip=tooltip, icon=icon, **kwargs)
        self._name = 'GuardedMarker'
        self.location_key = location_key
        self.add_child(AnimationGuard())


class ResetViewControl(MacroElement):
    """Button that returns the map to a fixed centre and zoom"""

    _template = Template(u"""
        {% macro script(this, kwargs) %}
        var {{ this.get_name() }} = (function(map) {
            var ResetView = L.Control.extend({
                options: { position: {{ this.position|tojson }} },
                onAdd: function() {
                    var container = L.DomUtil.create('div', 'leaflet-bar leaflet-control leaflet-control-reset');
                    var button = L.DomUtil.create('a', 'md-icon-button', container);
                    button.href = '#';
                    button.title = {{ this.title|tojson }};
                    button.setAttribute('role', 'button');
                    button.setAttribute('aria-label', {{ this.title|tojson }});
                    button.innerHTML = '&#8634;';
                    L.DomEvent.disableClickPropagation(container);
                    L.DomEvent.disableScrollPropagation(container);
                    L.DomEvent.on(button, 'click', function(e) {
                        L.DomEvent.preventDefault(e);
                        map.setView({{ this.center|tojson }}, {{ this.zoom }}, { animate: true });
                    });
                    this._button = button;
                    return container;
                },
                onRemove: function() {
                    if (this._button) { L.DomEvent.off(this._button); }
                }
            });
            return new ResetView().addTo(map);
        })({{ this._parent.get_name() }});
        {% endmacro %}
        """)

    def __init__(self, center, zoom, title='Ansicht zurücksetzen', position='topright'):
        super().__init__()
        self._name = 'ResetViewControl'
        self.center = [float(center[0]), float(center[1])]
        self.zoom = int(zoom)
        self.title = title
        self.position = position


class ViewPersistence(MacroElement):
    """Posts centre/zoom to the server after every move"""

    _template = Template(u"""
        {% macro script(this, kwargs) %}
        (function(map) {
            var interacted = false;
            ['mousedown', 'touchstart', 'wheel', 'keydown'].forEach(function(type) {
                map.getContainer().addEventListener(type, function() { interacted = true; }, { passive: true });
            });
            map.on('moveend', function() {
                if (!map._loaded) { return; }
                var center = map.getCenter();
                fetch({{ this.endpoint|tojson }}, {
                    method: 'POST',
                    headers: { 'Content-Type': 'application/json' },
                    body: JSON.stringify({
                        center: [center.lat, center.lng],
                        zoom: map.getZoom(),
                        user_interacted: interacted
                    })
                }).catch(function() {});
            });
        })({{ this._parent.get_name() }});
        {% endmacro %}
        """)

    def __init__(self, endpoint):
        super().__init__()
        self._name = 'ViewPersistence'
        self.endpoint = endpoint


class LocationBridge(MacroElement):
    """Reports LocateControl results to the server and reloads the page"""

    _template = Template(u"""
        {% macro script(this, kwargs) %}
        (function(map) {
            function report(payload) {
                fetch({{ this.endpoint|tojson }}, {
                    method: 'POST',
                    headers: { 'Content-Type': 'application/json' },
                    body: JSON.stringify(payload)
                }).then(function() {
                    (window.parent || window).location.reload();
                }).catch(function() {});
            }
            map.on('locationfound', function(e) {
                report({ lat: e.latlng.lat, lng: e.latlng.lng });
            });
            map.on('locationerror', function(e) {
                report({ error_code: e.code });
            });
        })({{ this._parent.get_name() }});
        {% endmacro %}
        """)

    def __init__(self, endpoint):
        super().__init__()
        self._name = 'LocationBridge'
        self.endpoint = endpoint


class ClickToCenter(MacroElement):
    """
    Pan so a clicked marker sits at a fraction of the viewport height

    The offset is computed from the current zoom and map size on every
    click. The map is panned, never jumped.
    """

    _template = Template(u"""
        {% macro script(this, kwargs) %}
        (function(layer, ratio) {
            layer.on('click', function(e) {
                var map = layer._map;
                if (!map) { return; }
                var latlng = (e.layer && e.layer.getLatLng) ? e.layer.getLatLng() : e.latlng;
                if (!latlng) { return; }
                var zoom = map.getZoom();
                var size = map.getSize();
                var point = map.project(latlng, zoom);
                var target = map.unproject(point.subtract([0, size.y * (ratio - 0.5)]), zoom);
                map.panTo(target, { animate: true });
            });
        })({{ this._parent.get_name() }}, {{ this.ratio }});
        {% endmacro %}
        """)

    def __init__(self, ratio=0.7):
        super().__init__()
        self._name = 'ClickToCenter'
        self.ratio = float(ratio)


class ViewChange(MacroElement):
    """One-off fitBounds or setView issued after the layers are in place"""

    _template = Template(u"""
        {% macro script(this, kwargs) %}
        {% if this.bounds %}
        {{ this._parent.get_name() }}.fitBounds({{ this.bounds|tojson }}, {{ this.options|tojson }});
        {% else %}
        {{ this._parent.get_name() }}.setView({{ this.center|tojson }}, {{ this.zoom }});
        {% endif %}
        {% endmacro %}
        """)

    def __init__(self, bounds=None, center=None, zoom=None, padding=50, max_zoom=None):
        super().__init__()
        self._name = 'ViewChange'
        self.bounds = [list(bounds[0]), list(bounds[1])] if bounds else None
        self.center = list(center) if center else None
        self.zoom = zoom
        self.options = {'padding': [padding, padding]}
        if max_zoom is not None:
            self.options['maxZoom'] = max_zoom


class Teardown(MacroElement):
    """Stops animations and detaches every listener when the page goes away"""

    _template = Template(u"""
        {% macro script(this, kwargs) %}
        window.addEventListener('pagehide', function() {
            var map = {{ this._parent.get_name() }};
            if (!map || !map._loaded) { return; }
            map.stop();
            map.eachLayer(function(layer) { layer.off(); });
            map.off();
            map.remove();
        });
        {% endmacro %}
        """)

    def __init__(self):
        super().__init__()
        self._name = 'Teardown'
